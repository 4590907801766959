"""
Core functionality for JobTalk.

This package contains the main logic for:
- Audio validation and speech-to-text conversion
- Categorizing transcripts into contact, scope, timeline and budget fields
- Editable session state with budget line items and reference images
- Proposal rendering as HTML or plain text
- Microphone capture and configuration management
"""
