"""Landmark definitions and joint tables for side-view bike-fit analysis."""

# MediaPipe Pose landmarks (33 total)
MP_LANDMARK_NAMES = [
    'NOSE', 'LEFT_EYE_INNER', 'LEFT_EYE', 'LEFT_EYE_OUTER',
    'RIGHT_EYE_INNER', 'RIGHT_EYE', 'RIGHT_EYE_OUTER',
    'LEFT_EAR', 'RIGHT_EAR', 'MOUTH_LEFT', 'MOUTH_RIGHT',
    'LEFT_SHOULDER', 'RIGHT_SHOULDER', 'LEFT_ELBOW', 'RIGHT_ELBOW',
    'LEFT_WRIST', 'RIGHT_WRIST', 'LEFT_PINKY', 'RIGHT_PINKY',
    'LEFT_INDEX', 'RIGHT_INDEX', 'LEFT_THUMB', 'RIGHT_THUMB',
    'LEFT_HIP', 'RIGHT_HIP', 'LEFT_KNEE', 'RIGHT_KNEE',
    'LEFT_ANKLE', 'RIGHT_ANKLE', 'LEFT_HEEL', 'RIGHT_HEEL',
    'LEFT_FOOT_INDEX', 'RIGHT_FOOT_INDEX'
]

MP_NAME_TO_INDEX = {name: i for i, name in enumerate(MP_LANDMARK_NAMES)}

SIDES = ("left", "right")

# Joints needed to measure one side of the rider, in extraction order
SIDE_JOINTS = ("shoulder", "elbow", "wrist", "hip", "knee", "ankle")

# Per-side joint -> MediaPipe index
SIDE_LANDMARKS = {
    side: {
        joint: MP_NAME_TO_INDEX[f"{side.upper()}_{joint.upper()}"]
        for joint in SIDE_JOINTS
    }
    for side in SIDES
}

# Measured channels, in reporting order
ANGLE_CHANNELS = ("knee", "hip", "torso", "elbow")

# Per-cycle statistic used as the channel's representative value
CHANNEL_STATISTIC = {
    "knee": "max",   # extension at bottom dead center
    "hip": "min",    # closure at top dead center
    "torso": "avg",
    "elbow": "avg",
}
