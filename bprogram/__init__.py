"""
Behavioral Programming engine

Core modules:
- events: Event values and EventPattern (by kind / by predicate)
- statement: request/wait/block statements and their normalization
- engine: event selection (priority arbitration with blocking) and wake-up rules
- program: BProgram, the round loop and its public entry points
- event_sink: optional trace records (no behavior changes)
"""
