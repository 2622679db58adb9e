"""Fixed-stride agent record layout.

Each agent is 16 contiguous float32 fields (64 bytes), grouped in four
16-byte blocks so the table can be copied verbatim into a compute backend:

    posX, posY, heading, speed,
    sensorLength, sensorSize, pad, pad,
    turnAngle0, turnAngle1, turnAngle2, pad,
    sensorAngle0, sensorAngle1, sensorAngle2, pad
"""

import numpy as np

RECORD_FIELDS = 16
RECORD_DTYPE = np.dtype('<f4')
RECORD_STRIDE = RECORD_FIELDS * RECORD_DTYPE.itemsize  # 64 bytes

POS_X = 0
POS_Y = 1
HEADING = 2
SPEED = 3
SENSOR_LENGTH = 4
SENSOR_SIZE = 5
TURN_ANGLES = slice(8, 11)
SENSOR_ANGLES = slice(12, 15)
POSITION = slice(POS_X, POS_Y + 1)

PAD_COLUMNS = (6, 7, 11, 15)

FIELD_NAMES = (
    "posX", "posY", "heading", "speed",
    "sensorLength", "sensorSize", "pad", "pad",
    "turnAngle0", "turnAngle1", "turnAngle2", "pad",
    "sensorAngle0", "sensorAngle1", "sensorAngle2", "pad",
)
