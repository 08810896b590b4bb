"""
Recognizer Test Suite

Structure:
- unit/: Unit tests for individual components
- integration/: End-to-end detection cycles on synthetic scenes
- fixtures/: Synthetic image generators shared by the tests
"""
