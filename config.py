"""
Configuration constants for tikr.

All tunable parameters in one place for easy adjustment and debugging.
Modify these values to fine-tune playback timing, storage locations and
the web server.
"""

import os
import sys

# =============================================================================
# PATHS
# =============================================================================

# HELPER: Detect if we are running as a compiled exe or a script
def get_base_path():
    if getattr(sys, 'frozen', False):
        # We are running as an exe - use the folder the exe is sitting in
        return os.path.dirname(sys.executable)
    else:
        # We are running as a script - use the script's folder
        return os.path.dirname(os.path.abspath(__file__))

# ROOT DIR
BASE_DIR = get_base_path()

# Data directory for tracks, loop regions and uploaded audio
DATA_DIR = os.environ.get("TIKR_DATA_DIR", os.path.join(BASE_DIR, "data"))

# Uploaded audio blobs live here, named <track id><ext>
AUDIO_DIR_NAME = "audio"

# Record files (flat JSON lists, one per record type)
TRACKS_FILE_NAME = "tracks.json"
LOOPS_FILE_NAME = "loops.json"

# Log files
LOG_DIR = os.path.join(BASE_DIR, "logs")

# =============================================================================
# AUDIO MIXER SETTINGS
# =============================================================================

# Sample rate for audio playback (Hz)
SAMPLE_RATE = 44100

# Number of audio channels (2 = stereo)
CHANNELS = 2

# Pygame mixer buffer size (lower = less latency, but more CPU)
MIXER_BUFFER_SIZE = 1024

# Timeout for the ffprobe duration probe (seconds)
FFPROBE_TIMEOUT = 10

# =============================================================================
# TRANSPORT SETTINGS
# =============================================================================

# How often the transport monitor polls the media clock (seconds).
# Position updates are never staler than one tick.
TICK_INTERVAL = 0.025

# Initial volume of a freshly bound transport (0.0 - 1.0)
DEFAULT_VOLUME = 1.0

# Volume change per up/down shortcut
VOLUME_STEP = 0.05

# Seek distances for the arrow and j/l shortcuts (seconds)
SEEK_STEP_SHORT = 5.0
SEEK_STEP_LONG = 10.0

# =============================================================================
# LOOP WRAP SETTINGS
# =============================================================================

# How early to wrap back to the loop start before reaching the loop end
# (milliseconds). Absorbs clock-tick granularity so playback never
# overshoots the end boundary.
# TUNABLE: Increase if the loop end is audible, decrease for tighter loops
LOOP_WRAP_TOLERANCE_MS = 50

# =============================================================================
# WEB SERVER SETTINGS
# =============================================================================

WEB_HOST = "127.0.0.1"
WEB_PORT = 3001

# =============================================================================
# FILE SETTINGS
# =============================================================================

# Supported audio formats
SUPPORTED_FORMATS = ('.mp3', '.wav', '.ogg', '.flac', '.m4a', '.aac')

# =============================================================================
# DEFAULT NAMES
# =============================================================================

# Used when a loop is saved without a label: "Loop <epoch ms>"
DEFAULT_LOOP_LABEL = "Loop"
