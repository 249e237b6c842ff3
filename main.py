#!/usr/bin/env python3
"""
Ambient Scene Narrator

Uses your camera to notice when the scene changes, asks a vision model
(OpenAI or Anthropic) what it sees, and speaks the answer.

Usage:
    python main.py [--provider OpenAI] [--camera-index 0] [--update-interval 6000]
"""

from scene_narrator.app import run

if __name__ == "__main__":
    run()
