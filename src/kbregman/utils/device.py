"""
Device selection utilities.
"""

from typing import Optional, Union
import warnings

import torch


def get_default_device() -> torch.device:
    """Get the default device based on availability.

    Returns:
        cuda if available, else cpu
    """
    # MPS lacks float64 support, which the divergences rely on
    if torch.cuda.is_available():
        return torch.device('cuda')
    return torch.device('cpu')


def parse_device(device: Optional[Union[str, torch.device]] = None) -> torch.device:
    """Parse device specification.

    Args:
        device: None or 'auto' for the default device, 'cpu', 'cuda',
            'cuda:X', or a torch.device used as-is

    Returns:
        Parsed device
    """
    if device is None or device == 'auto':
        return get_default_device()

    if isinstance(device, torch.device):
        return device

    if isinstance(device, str):
        if device == 'cpu':
            return torch.device('cpu')
        if device.startswith('cuda'):
            if not torch.cuda.is_available():
                warnings.warn("CUDA not available, falling back to CPU")
                return torch.device('cpu')
            return torch.device(device)
        raise ValueError(f"Unknown device: {device}")

    raise TypeError(f"Device must be str or torch.device, got {type(device)}")
