"""
statecore CLI

Commands:
- statecore run APP -e EVENT ...  - Dispatch events and report state
- statecore registry APP          - List registered handlers
- statecore version               - Show version
"""
