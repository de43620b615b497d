#!/usr/bin/env python3
"""
ModelManager - Singleton manager for Whisper model loading and caching.

A reload of the configuration builds a new decoder; the cache means the
underlying model is only loaded again when its settings actually changed.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class ModelManager:
    """
    Singleton manager for Whisper models.

    - Singleton pattern ensures only one manager instance
    - Model caching keyed on (name, device, compute_type)
    - Per-model locks so two threads never load the same model twice
    """

    _instance: Optional[ModelManager] = None
    _lock = threading.Lock()

    def __new__(cls) -> ModelManager:
        """Ensure singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the ModelManager (only once)."""
        if self._initialized:
            return

        self._models: Dict[str, object] = {}
        self._model_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._initialized = True

        logger.debug("ModelManager singleton initialized")

    def get_model(self, model_name: str, device: str = "cpu", compute_type: str = "int8") -> object:
        """
        Get or load a Whisper model with caching.

        Args:
            model_name: Name or path of the Whisper model (e.g., "base.en")
            device: Device to load model on ("cpu", "cuda", "auto")
            compute_type: Compute type for model ("int8", "float16", "auto")

        Returns:
            Loaded WhisperModel instance

        Raises:
            ImportError: If faster-whisper is not available

        """
        model_key = f"{model_name}_{device}_{compute_type}"

        with self._registry_lock:
            if model_key in self._models:
                logger.debug(f"Using cached model: {model_key}")
                return self._models[model_key]
            model_lock = self._model_locks.setdefault(model_key, threading.Lock())

        with model_lock:
            # Double-check: another thread may have loaded it while we waited
            if model_key in self._models:
                return self._models[model_key]

            logger.info(f"Loading Whisper model: {model_name} (device={device}, compute_type={compute_type})")
            try:
                from faster_whisper import WhisperModel
            except ImportError as e:
                logger.error(f"faster-whisper not available: {e}")
                raise ImportError("faster-whisper package is required for model loading") from e

            model = WhisperModel(model_name, device=device, compute_type=compute_type)
            with self._registry_lock:
                self._models[model_key] = model
            logger.info(f"Model loaded and cached: {model_key}")
            return model

    def clear_cache(self) -> None:
        """Drop all cached models; they are reloaded on next request."""
        with self._registry_lock:
            logger.info(f"Clearing model cache ({len(self._models)} models)")
            self._models.clear()
            self._model_locks.clear()

    def get_cached_models(self) -> Dict[str, str]:
        """Map of cached model keys to a short description."""
        with self._registry_lock:
            return {key: f"Model({type(model).__name__})" for key, model in self._models.items()}


_manager_instance: Optional[ModelManager] = None


def get_model_manager() -> ModelManager:
    """Get the global ModelManager singleton instance."""
    global _manager_instance
    if _manager_instance is None:
        _manager_instance = ModelManager()
    return _manager_instance
