"""Allow running the service as a module: python -m tunebot."""

from tunebot.runner import main

if __name__ == "__main__":
    main()
