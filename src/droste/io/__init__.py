"""
Export encoders for rendered frame sequences.
"""

from droste.io.encoder import ExportError, encode_gif, encode_video, encoder_for_path
