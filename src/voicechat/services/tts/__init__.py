"""
TTS (Text-to-Speech) pipeline package.

- tts_processor: chunked, ordered synthesis behind the real-time TTS route

Architecture Overview:

    ┌─────────────┐     ┌─────────────┐     ┌──────────────┐     ┌──────────────┐
    │ Chat stream │────▶│ TextChunker │────▶│ phrase_queue │────▶│ TTSProcessor │
    └─────────────┘     └─────────────┘     └──────────────┘     └──────────────┘
           │                                                            │
           ▼                                                            ▼
    ┌─────────────┐                                              ┌─────────────┐
    │ text events │─────────────────────────────────────────────▶│  SSE stream │
    └─────────────┘                                              └─────────────┘

The TextChunker flushes on sentence punctuation, newlines, or after 20
characters, keeping time-to-first-audio low without chopping words.
"""

from .tts_processor import RealtimeSpeechPipeline, TTSProcessor

__all__ = ["RealtimeSpeechPipeline", "TTSProcessor"]
