"""
Console script entry point for the cloud resource monitor package.
"""
import asyncio
import sys


def main_sync():
    """Synchronous wrapper for the async main function"""
    from cloud_resource_monitor.api import run_server
    from cloud_resource_monitor.cli import main

    try:
        result = asyncio.run(main())

        # uvicorn starts its own event loop, so serve mode runs after asyncio.run returns
        if isinstance(result, tuple) and result[0] == "serve":
            run_server(**result[1])

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main_sync()
