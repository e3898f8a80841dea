"""
Miow - Autonomous code agent client.

A terminal client for the Miow backend. The backend indexes a codebase and
runs the autonomous agent; the client streams the agent's events, lets the
user pause, resume or stop the stream, and filters what gets recorded.

Architecture:
- Request layer: single-shot JSON calls (health, files, signature, context)
- Stream core: frame decoder -> line classifier -> history + status
- Control plane: pause / resume / stop of the read loop

Usage:
    miow health                              # Check backend
    miow generate ./project "add a button"   # Stream the agent
    miow files ./project "auth flow"         # Relevant files
"""

__version__ = "0.3.0"
__author__ = "Miow Team"
