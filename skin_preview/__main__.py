"""Main module for skin_preview MCP server.

This module allows the server to be run as a Python module using:
python -m skin_preview

It delegates to the server application's main function.
"""

from skin_preview.server.app import main

if __name__ == "__main__":
    main()
