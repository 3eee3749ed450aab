"""Execution pipeline for the template runtime.

This package contains the core resolution and execution components:

- **context_resolver**: Context requirements (explicit / wildcard) -> catalog items
- **variables**: Template variables (provided / trigger context / default) -> values
- **conditions**: Trigger conditions over (current, previous) state snapshots
- **overrides**: Trigger template overrides -> effective workspace blueprint
- **rendering**: Jinja2 rendering of naming patterns and file templates
- **orchestrator**: Template application (resolve -> provision -> record stats)
- **stats**: Atomic usage / trigger counters
- **triggers**: Trigger execution (mapping -> orchestrator -> counters)
- **scheduler**: Poll / evaluate / fire loops for active triggers
"""
