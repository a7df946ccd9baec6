from .cli import entrypoint_app

entrypoint_app(prog_name="horizon-entrypoint")
