"""Main entry point for the Safari data MCP server."""
import asyncio

from safari_data.server import main as server_main


def main():
    asyncio.run(server_main())


if __name__ == "__main__":
    main()
