"""Engine Layer - Core Orchestration and Pipeline Management

- SearchOrchestrator (orchestrator.py): mode → plan → backend runs → ranking/evaluation
- bounded_map (pool.py): fixed-concurrency enrichment pool
- post_process_listings (ranking.py): dedupe, budget filter/relaxation, selection policy
- build_eval_result (evaluator.py): dual-mode scoring and winner selection
- ExecutionStrategy (modes.py): mode resolution, validation and fallback decisions
- BudgetManager (budget.py): timing checkpoints and deadline tracking

Submodules are imported directly; backends depend on the pool, so nothing is
re-exported here.
"""
