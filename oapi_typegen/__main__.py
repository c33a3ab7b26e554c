"""Entry point for ``python -m oapi_typegen``."""

from .codegen.main import main

if __name__ == "__main__":
    main()
