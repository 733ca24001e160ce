"""
Core business logic for turning screen recordings into RPA documents.

This module is framework-agnostic - it doesn't import FastAPI, ffmpeg,
or any AI SDK. Transcoders, vision clients and document writers are
plugged in through Protocols, so the whole pipeline can be tested with
fakes.
"""
