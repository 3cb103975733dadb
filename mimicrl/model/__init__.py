from .model_loader import ModelLoader
from .model_saver import ModelSaver

__all__ = ["ModelLoader", "ModelSaver"]
