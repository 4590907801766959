"""
Test suite for JobTalk.

This package contains tests for all core functionality including:
- Type definitions and sentinel defaulting
- Audio validation and speech-to-text processing
- Transcript categorization
- The intake pipeline and its status notifications
- The editable field store, line items and images
- Proposal rendering and payment math
- Microphone capture and live word feedback
- Configuration management and the CLI
"""
