"""Reasoning backends (Ollama, Gemini) behind one ordered provider chain."""
