#!/usr/bin/env -S uv run
# /// script
# requires-python = ">=3.10"
# ///
"""RTK Bootstrap -- tells the agent about rtk at session start.

SessionStart hook that injects RTK awareness text (meta commands, install
check, supported tools) as additional context. Purely informational; it has
no interaction with the rewrite hook.
"""

import json
import sys

from rtk_rewrite import load_config, setup_logger

_MAX_INPUT = 10 * 1024 * 1024  # 10 MB

RTK_AWARENESS = """# RTK - Rust Token Killer

**Usage**: Token-optimized CLI proxy (60-90% savings on dev operations)

## How It Works

The RTK plugin automatically rewrites your Bash commands to use RTK filters.
For example, `git status` becomes `rtk git status` transparently.
You do NOT need to manually prefix commands with `rtk` — the plugin handles it.

## Meta Commands (use these directly)

```bash
rtk gain              # Show token savings analytics
rtk gain --history    # Show command usage history with savings
rtk gain --graph      # ASCII graph of daily savings
rtk discover          # Analyze session history for missed opportunities
rtk proxy <cmd>       # Execute raw command without filtering (for debugging)
```

## Installation Verification

```bash
rtk --version         # Should show: rtk X.Y.Z
rtk gain              # Should work (not "command not found")
```

## Supported Commands

RTK filters output from: git, cargo, gh, grep, ls, cat/read, docker, kubectl,
curl, pnpm, npm, vitest, playwright, prisma, tsc, eslint, prettier, next,
pytest, ruff, pip, go, golangci-lint, and more.
"""


def _parse_hook_input() -> dict:
    raw = sys.stdin.buffer.read(_MAX_INPUT + 1)
    if len(raw) > _MAX_INPUT:
        sys.exit(0)
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        print("rtk-bootstrap: failed to parse hook input", file=sys.stderr)
        sys.exit(0)
    if not isinstance(data, dict):
        sys.exit(0)
    return data


def main() -> None:
    data = _parse_hook_input()
    if data.get("hook_event_name") != "SessionStart":
        sys.exit(0)

    logger = setup_logger("rtk-bootstrap", load_config().verbose)
    print(
        json.dumps(
            {
                "hookSpecificOutput": {
                    "hookEventName": "SessionStart",
                    "additionalContext": RTK_AWARENESS,
                }
            }
        )
    )
    logger.info("Injected RTK awareness into agent context")
    sys.exit(0)


if __name__ == "__main__":
    main()
