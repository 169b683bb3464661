"""Unit tests for redeploy.

External tools (git, cargo, pm2) are replaced by a recording fake, so no
working copy or process supervisor is required.

Run with: pytest tests/unit/ -v
"""
