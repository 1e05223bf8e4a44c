"""Missingness pattern classes for simulation studies."""

import numpy as np
import pandas as pd
from abc import ABC, abstractmethod
from numpy.random import default_rng

class MissingnessPattern(ABC):
    """Abstract base class for missingness patterns.
    
    All missingness patterns must implement:
    - apply(data, rng=None): Apply missingness to data
    - name: Property for descriptive name
    """
    
    @abstractmethod
    def apply(self, data, rng=None):
        """Apply missingness to the data.
        
        Parameters:
        - data: Complete input DataFrame
        - rng: numpy Generator
        
        Returns:
        - dat_miss: DataFrame with NaN in the removed cells
        - mask: Boolean DataFrame, True where a cell was removed
        """
        pass
    
    @property
    @abstractmethod
    def name(self):
        """Return descriptive name of the pattern."""
        pass

class MCARPattern(MissingnessPattern):
    """Each cell is removed independently with probability `prob`."""

    def __init__(self, prob=0.1):
        if not (0 <= prob < 1):
            raise ValueError(f"prob must be in [0, 1). Got {prob}.")
        self.prob = prob

    def apply(self, data, rng=None):
        if rng is None:
            rng = default_rng(123)
        draws = rng.binomial(1, self.prob, size=data.shape).astype(bool)
        mask = pd.DataFrame(draws, index=data.index, columns=data.columns)
        dat_miss = data.mask(mask)
        return dat_miss, mask
    
    @property
    def name(self):
        return 'mcar'
