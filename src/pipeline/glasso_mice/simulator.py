"""Simulation study orchestration."""

import time
import logging
from dataclasses import dataclass, asdict
from multiprocessing import Pool

import pandas as pd
from tqdm import tqdm
from numpy.random import default_rng

from src.pipeline.glasso_mice.data_generators import build_structure, generate_data
from src.pipeline.glasso_mice.errors import RunFailure, SimulationError
from src.pipeline.glasso_mice.evaluator import evaluate_structure, true_structure
from src.pipeline.glasso_mice.imputation_methods import METHODS
from src.pipeline.glasso_mice.missingness_patterns import MCARPattern
from src.pipeline.glasso_mice.sparsity import GraphicalLassoSolver, SparsityEstimator, SELECTION_RULES, regularization_path
from src.pipeline.glasso_mice.voting import majority_vote

logger = logging.getLogger(__name__)

# Single-table baseline reusing the last table of the proposed method
COMPLETED_DATA = 'completed_data'
ALL_METHODS = ['glasso_mice', COMPLETED_DATA, 'mice_default', 'mice_lasso', 'oracle']


@dataclass(frozen=True)
class RunRecord:
    run_idx: int
    method: str
    auc: float
    initial_imputation_time: float = 0.0
    imputation_time: float = 0.0
    evaluation_time: float = 0.0


def _run_scenario_worker(args):
    study, run_idx = args
    try:
        return study.run_scenario(run_idx)
    except RunFailure as e:
        logger.warning(f"Skipping run {run_idx}: {e}")
        return None


class SimulationStudy:
    def __init__(self, n=100, p=50, num_runs=2, missing_prob=0.1, rho_max=10.0, rho_step=0.05,
                 n_iterations=5, n_passes=5, selection='max', include_diagonal=True, zero_diagonal=False,
                 zero_tol=0.0, methods=None, n_jobs=1, seed=100, solver=None):
        self.n = n
        self.p = p
        self.num_runs = num_runs
        self.missing_prob = missing_prob
        self.rhos = regularization_path(rho_max, rho_step)
        self.n_iterations = n_iterations
        self.n_passes = n_passes
        self.selection = selection
        self.include_diagonal = include_diagonal
        self.zero_diagonal = zero_diagonal
        self.zero_tol = zero_tol
        self.methods = list(methods) if methods is not None else list(ALL_METHODS)
        self.n_jobs = n_jobs
        self.seed = seed
        self.solver = solver if solver is not None else GraphicalLassoSolver()

        if n < 2 or p < 2:
            raise ValueError(f"n and p must both be at least 2. Got n={n}, p={p}.")
        if num_runs < 1:
            raise ValueError(f"num_runs must be at least 1. Got {num_runs}.")
        if not (0 <= missing_prob < 1):
            raise ValueError(f"missing_prob must be in [0, 1). Got {missing_prob}.")
        if selection not in SELECTION_RULES:
            raise ValueError(f"selection must be one of {SELECTION_RULES}. Got {selection!r}.")
        unknown = [m for m in self.methods if m not in ALL_METHODS]
        if unknown:
            raise ValueError(f"Unknown methods {unknown}. Choose from {ALL_METHODS}.")
        if COMPLETED_DATA in self.methods and 'glasso_mice' not in self.methods:
            raise ValueError(f"'{COMPLETED_DATA}' reuses the output of 'glasso_mice', which must also be selected.")

    def run_seed(self, run_idx):
        """Seed of run `run_idx` (0-based): seed, 2 * seed, 3 * seed, ..."""
        return self.seed * (run_idx + 1)

    def _make_method(self, name):
        if name == 'glasso_mice':
            estimator = SparsityEstimator(self.solver, self.rhos, self.selection, self.zero_tol)
            return METHODS[name](estimator=estimator, n_iterations=self.n_iterations, n_passes=self.n_passes,
                                 n_jobs=self.n_jobs)
        if name in ('mice_default', 'mice_lasso'):
            return METHODS[name](n_imputations=self.n_passes)
        return METHODS[name]()

    def evaluate(self, datasets, truth_bin):
        """Majority-vote the datasets at every strength and score against the truth."""
        voted = majority_vote(datasets, self.rhos, self.solver, self.zero_tol, self.zero_diagonal)
        return evaluate_structure(voted, truth_bin, self.rhos, self.include_diagonal)

    def run_scenario(self, run_idx):
        """
        Run one replicate: generate data, remove cells, impute with every
        selected method, and evaluate the voted structures.

        Returns:
        - records: List of RunRecord, one per method
        - roc_curves: Dict method -> ROC DataFrame (with a run_idx column)

        Raises RunFailure carrying the run index and the failing phase.
        """
        rng = default_rng(self.run_seed(run_idx))
        data_rng, miss_rng, methods_rng = rng.spawn(3)
        method_rngs = dict(zip(ALL_METHODS, methods_rng.spawn(len(ALL_METHODS))))

        records = []
        roc_curves = {}
        phase = 'structure'
        try:
            omega, sigma = build_structure(self.p)
            truth_bin = true_structure(omega)

            phase = 'data generation'
            complete_data = generate_data(self.n, sigma, rng=data_rng)
            dat_miss, mask = MCARPattern(self.missing_prob).apply(complete_data, rng=miss_rng)
            logger.info(f"Run {run_idx}: {int(mask.to_numpy().sum())} of {mask.size} cells missing")

            pseudo_complete = None
            for name in self.methods:
                if name == COMPLETED_DATA:
                    continue
                phase = f'{name} imputation'
                method = self._make_method(name)
                start = time.perf_counter()
                imputed_list = method.impute(dat_miss, complete_data, rng=method_rngs[name])
                imputation_time = time.perf_counter() - start
                initial_time = getattr(method, 'initial_imputation_time', 0.0)
                if name == 'glasso_mice':
                    pseudo_complete = imputed_list

                phase = f'{name} evaluation'
                start = time.perf_counter()
                roc_df, auc = self.evaluate(imputed_list, truth_bin)
                evaluation_time = time.perf_counter() - start

                records.append(RunRecord(run_idx, name, auc, initial_time, imputation_time - initial_time, evaluation_time))
                roc_curves[name] = roc_df.assign(run_idx=run_idx)
                logger.info(f"Run {run_idx} - {name}: AUC={auc:.4f}")

            if COMPLETED_DATA in self.methods:
                phase = f'{COMPLETED_DATA} evaluation'
                start = time.perf_counter()
                roc_df, auc = self.evaluate([pseudo_complete[-1]], truth_bin)
                records.append(RunRecord(run_idx, COMPLETED_DATA, auc, evaluation_time=time.perf_counter() - start))
                roc_curves[COMPLETED_DATA] = roc_df.assign(run_idx=run_idx)
                logger.info(f"Run {run_idx} - {COMPLETED_DATA}: AUC={auc:.4f}")
        except SimulationError as e:
            raise RunFailure(run_idx, phase, e) from e
        except Exception as e:
            logger.exception(f"Run {run_idx}: unexpected error during {phase}")
            raise RunFailure(run_idx, phase, e) from e

        return records, roc_curves

    def run_all(self):
        """
        Run every replicate and collect the results of the completed ones.

        Runs are spread over `n_jobs` processes when there is more than one
        run; the passes inside a run are then executed serially.

        Returns:
        - results: DataFrame with one row per (run, method)
        - roc_curves: Dict method -> list of ROC DataFrames, one per completed run
        """
        parallel_runs = self.n_jobs > 1 and self.num_runs > 1
        if parallel_runs:
            num_processes = min(self.n_jobs, self.num_runs)
            logger.info(f"Parallelizing {self.num_runs} runs across {num_processes} processes")
            worker_study = self._serial_copy()
            args_list = [(worker_study, run_idx) for run_idx in range(self.num_runs)]
            with Pool(processes=num_processes) as pool:
                outcomes = list(tqdm(pool.imap(_run_scenario_worker, args_list), total=self.num_runs, desc="Runs"))
        else:
            outcomes = [_run_scenario_worker((self, run_idx)) for run_idx in tqdm(range(self.num_runs), desc="Runs")]

        records = []
        roc_curves = {name: [] for name in self.methods}
        for outcome in outcomes:
            if outcome is None:
                continue
            run_records, run_rocs = outcome
            records.extend(run_records)
            for name, roc_df in run_rocs.items():
                roc_curves[name].append(roc_df)

        completed = len([o for o in outcomes if o is not None])
        logger.info(f"Completed {completed} of {self.num_runs} runs")
        results = pd.DataFrame([asdict(r) for r in records], columns=list(RunRecord.__dataclass_fields__))
        return results, roc_curves

    def _serial_copy(self):
        """A copy whose passes run in-process, for use inside pool workers."""
        study = SimulationStudy.__new__(SimulationStudy)
        study.__dict__.update(self.__dict__)
        study.n_jobs = 1
        return study
