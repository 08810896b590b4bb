"""
Ingestion collaborators for the recognizer.

Provides:
- FrameBuffer: single-slot, last-writer-wins handoff to the detection loop
- Frame sources:
    - VideoFrameSource: replay from a video file
    - WebcamFrameSource: live camera device
    - StillImageSource: repeat one image file
    - PasteSceneSource: synthetic scene with the reference pasted on a background
- FrameFeeder: background thread pushing a source into the detector

Usage examples:
    from ingest.buffer import FrameBuffer
    from ingest.camera import VideoFrameSource, PasteSceneSource
"""
