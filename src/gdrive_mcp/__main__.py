"""Allow ``python -m gdrive_mcp`` to start the stdio server."""

import sys

from gdrive_mcp.cli.main import main

if __name__ == "__main__":
    main(args=sys.argv[1:] or ["serve"], prog_name="gdrive-mcp")
