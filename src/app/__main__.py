# src/app/__main__.py

from .runtime import main

if __name__ == "__main__":
    main()
