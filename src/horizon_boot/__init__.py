"""
horizon_boot package.

Container bootstrap for the OpenCode image:
- structured logging (coloured console + append-only JSON Lines file)
  with caller attribution and degrade-not-crash I/O
- a linear entrypoint: validate workspace, health check, startup info,
  signal handlers, then exec the target in place of PID 1
"""
