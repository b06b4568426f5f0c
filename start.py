#!/usr/bin/env python
"""Startup script for deployment.
Uses Python to read PORT env var directly, avoiding shell expansion issues."""
import os
import subprocess
import sys

port = os.environ.get('PORT', '8000')
print(f"Starting TAWA portal on port {port}...")

# sessions are the only table we have
print("Running migrations...")
subprocess.run([sys.executable, 'manage.py', 'migrate', '--noinput'], check=True)

# not fatal, the backend may come up after us
print("Checking backend api...")
subprocess.run([sys.executable, 'manage.py', 'check_backend'], check=False)

# start daphne - replace this process with daphne
print(f"Launching Daphne on 0.0.0.0:{port}...")
os.execvp('daphne', ['daphne', '-b', '0.0.0.0', '-p', port, 'training_portal.asgi:application'])
