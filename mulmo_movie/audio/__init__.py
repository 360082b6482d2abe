# mulmo_movie/audio/__init__.py
# ==============================
# Media Layer: mulmo-movie
#
# Responsibility:
#   - Wrap ffmpeg / ffprobe / pydub behind the MediaTool capability
#     (probe, silence detection, cuts, thumbnails)
#   - Parse silencedetect output into SilenceIntervals
#   - Partition a recording into silence-anchored segments
