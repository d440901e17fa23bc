from .price import PriceObservation
from .prediction import PredictionResult


__all__ = ["PriceObservation", "PredictionResult"]
