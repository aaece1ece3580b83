"""MediaPipe Face Mesh indices consumed by the position estimator."""

# Refined mesh: 468 face points plus 10 iris points.
FACE_MESH_LANDMARK_COUNT = 478

LEFT_EYE_INDEX = 33
RIGHT_EYE_INDEX = 263
