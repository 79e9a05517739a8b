from .service import DormancyRanker, dormancy_ranker

__all__ = ["DormancyRanker", "dormancy_ranker"]
