"""
Core coordination package.

Contains the headless SessionController (core.engine) plus the clock,
periodic timers, readiness latches, capture loop and provisioning call it
wires together. Zero UI dependencies.

Submodules are imported directly: tracking.accumulator depends on
core.clock, so this package must not import core.engine eagerly.
"""
