"""Infrastructure layer exports."""

from .copywriter import CopySynthesizer, OpenAICopywriter
from .image_store import FilerImageStore, ImageFetch, ImageStore, InMemoryImageStore
from .image_synthesis import ImageSynthesis, ImageSynthesisError, OAuthImageSynthesisClient
from .predictor import AttributePredictor, DeploymentPredictorClient, PredictionResult
from .prompting import OpenAIPromptGenerator, PromptGenerator
from .store import InMemoryStatusStore, StatusStore
from .unconfigured import UnconfiguredService
from .vision import OpenAIVisionClient, VisionInference

__all__ = [
    "AttributePredictor",
    "CopySynthesizer",
    "DeploymentPredictorClient",
    "FilerImageStore",
    "ImageFetch",
    "ImageStore",
    "ImageSynthesis",
    "ImageSynthesisError",
    "InMemoryImageStore",
    "InMemoryStatusStore",
    "OAuthImageSynthesisClient",
    "OpenAICopywriter",
    "OpenAIPromptGenerator",
    "OpenAIVisionClient",
    "PredictionResult",
    "PromptGenerator",
    "StatusStore",
    "UnconfiguredService",
    "VisionInference",
]
