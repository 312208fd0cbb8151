"""Core domain package for ggwatch.

Core contains watermarking, snapshot diffing and poll orchestration without
any HTTP or Telegram-specific code, keeping the detection logic portable.
"""
