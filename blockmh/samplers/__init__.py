from blockmh.samplers.single_chain import EngineStatus, MetropolisHastings, RunResult

__all__ = [
    "MetropolisHastings",
    "EngineStatus",
    "RunResult",
]
