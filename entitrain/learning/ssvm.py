"""
Structural SVM Solver
=====================

Solver 1-slack cutting-plane per SVM strutturali, usato sia dal segmenter
(sequenze) sia dal classificatore multiclasse.

Problema primale:

    min_w  lambda/2 ||w||^2 + 1/n sum_i max_y [ L_i(y) - <w, psi_i(y)> ]

con psi_i(y) = phi(x_i, y_i) - phi(x_i, y) e lambda = 1/C.

Ogni iterazione:
1. chiama l'oracolo di separazione (argmax loss-augmented) su tutte le
   istanze, partizionate su ``num_threads`` worker; ogni worker restituisce
   una somma parziale (psi, loss) e le somme parziali vengono ridotte
   nell'ordine delle partizioni (unico punto di sincronizzazione);
2. aggiunge il piano di taglio risultante al modello;
3. risolve il duale ristretto (QP sul simplesso) e aggiorna w.

Il gap tra il miglior valore primale e il valore duale e' un certificato
di convergenza: il solver si ferma quando gap <= epsilon * primale.

Esempio:
    >>> solver = StructuralSVMSolver(c=10.0, epsilon=0.01, num_threads=4)
    >>> result = solver.solve(problem)
    >>> result.weights.shape
    (problem.dimensionality,)
"""

import math
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
import structlog

from entitrain.exceptions import ConvergenceError, TrainingError

log = structlog.get_logger()

# Un piano inattivo per questo numero di iterazioni viene rimosso.
INACTIVE_PLANE_LIMIT = 30
INNER_MAX_ITERATIONS = 500


class StructuralProblem(ABC):
    """Interfaccia di un problema di apprendimento strutturato."""

    @property
    @abstractmethod
    def num_samples(self) -> int:
        ...

    @property
    @abstractmethod
    def dimensionality(self) -> int:
        ...

    @abstractmethod
    def true_feature(self, i: int) -> np.ndarray:
        """phi(x_i, y_i)."""

    @abstractmethod
    def separation_oracle(self, i: int, weights: np.ndarray) -> Tuple[np.ndarray, float]:
        """
        Argmax loss-augmented per l'istanza i.

        Returns:
            (phi(x_i, y_hat), L_i(y_hat))
        """


@dataclass
class SolverResult:
    """
    Esito dell'ottimizzazione.

    Attributes:
        weights: Vettore dei pesi appreso
        iterations: Iterazioni esterne eseguite
        primal: Miglior valore primale trovato
        dual: Valore duale (lower bound)
        gap: primal - dual
        num_planes: Piani attivi alla fine
    """
    weights: np.ndarray
    iterations: int
    primal: float
    dual: float
    gap: float
    num_planes: int


def partition_indices(n: int, num_partitions: int) -> List[np.ndarray]:
    """Partizioni contigue e disgiunte di range(n), nessuna vuota."""
    num_partitions = max(1, min(num_partitions, n))
    return [p for p in np.array_split(np.arange(n), num_partitions) if len(p)]


def project_to_simplex(v: np.ndarray) -> np.ndarray:
    """Proiezione euclidea sul simplesso {a >= 0, sum(a) = 1}."""
    u = np.sort(v)[::-1]
    css = np.cumsum(u) - 1.0
    ind = np.arange(1, len(v) + 1)
    rho = np.nonzero(u - css / ind > 0)[0][-1]
    theta = css[rho] / (rho + 1.0)
    return np.maximum(v - theta, 0.0)


class StructuralSVMSolver:
    """
    Solver cutting-plane parallelo.

    Args:
        c: Costante di regolarizzazione (lambda = 1/c)
        epsilon: Tolleranza relativa sul gap primale-duale
        max_iterations: Numero massimo di iterazioni esterne
        num_threads: Worker per le chiamate all'oracolo
    """

    def __init__(
        self,
        c: float = 1.0,
        epsilon: float = 0.01,
        max_iterations: int = 500,
        num_threads: int = 1,
    ):
        if c <= 0:
            raise ValueError("c deve essere > 0")
        self.c = c
        self.lam = 1.0 / c
        self.epsilon = epsilon
        self.max_iterations = max_iterations
        self.num_threads = num_threads

    def solve(self, problem: StructuralProblem) -> SolverResult:
        n = problem.num_samples
        dim = problem.dimensionality
        if n == 0:
            raise TrainingError("Nessun esempio per l'ottimizzazione")

        partitions = partition_indices(n, self.num_threads)
        with ThreadPoolExecutor(max_workers=len(partitions)) as executor:
            true_sum = self._reduce(
                executor.map(lambda idx: _sum_true_features(problem, idx, dim), partitions)
            )
            return self._cutting_plane(problem, executor, partitions, true_sum / n)

    @staticmethod
    def _reduce(partials) -> np.ndarray:
        total = None
        for part in partials:
            total = part if total is None else total + part
        return total

    def _oracle_pass(
        self,
        problem: StructuralProblem,
        executor: ThreadPoolExecutor,
        partitions: Sequence[np.ndarray],
        weights: np.ndarray,
    ) -> Tuple[np.ndarray, float]:
        partials = list(executor.map(
            lambda idx: _oracle_partition(problem, idx, weights),
            partitions,
        ))
        phi_sum = self._reduce(p[0] for p in partials)
        loss_sum = sum(p[1] for p in partials)
        return phi_sum, loss_sum

    def _cutting_plane(
        self,
        problem: StructuralProblem,
        executor: ThreadPoolExecutor,
        partitions: Sequence[np.ndarray],
        true_mean: np.ndarray,
    ) -> SolverResult:
        n = problem.num_samples
        dim = problem.dimensionality
        lam = self.lam

        # Piano 0: vincolo xi >= 0
        planes_a: List[np.ndarray] = [np.zeros(dim)]
        planes_b: List[float] = [0.0]
        inactive: List[int] = [0]
        gram = np.zeros((1, 1))
        alpha = np.ones(1)

        weights = np.zeros(dim)
        best_weights = weights
        best_primal = math.inf
        dual = 0.0
        gap = math.inf

        log.debug(
            "ssvm_started",
            samples=n,
            dimensionality=dim,
            c=self.c,
            partitions=len(partitions),
        )

        for iteration in range(1, self.max_iterations + 1):
            phi_sum, loss_sum = self._oracle_pass(problem, executor, partitions, weights)
            a_new = true_mean - phi_sum / n
            b_new = loss_sum / n

            risk = b_new - float(weights @ a_new)
            primal = 0.5 * lam * float(weights @ weights) + max(risk, 0.0)
            if not math.isfinite(primal):
                raise TrainingError(f"Obiettivo non finito all'iterazione {iteration}")
            if primal < best_primal:
                best_primal = primal
                best_weights = weights

            gap = best_primal - dual
            if gap <= self.epsilon * best_primal:
                log.debug(
                    "ssvm_converged",
                    iterations=iteration,
                    primal=round(best_primal, 6),
                    dual=round(dual, 6),
                    planes=len(planes_a),
                )
                return SolverResult(
                    weights=best_weights.copy(),
                    iterations=iteration,
                    primal=best_primal,
                    dual=dual,
                    gap=gap,
                    num_planes=len(planes_a),
                )

            # Nuovo piano + aggiornamento incrementale della matrice di Gram
            dots = np.array([float(a @ a_new) for a in planes_a])
            m = len(planes_a)
            new_gram = np.empty((m + 1, m + 1))
            new_gram[:m, :m] = gram
            new_gram[m, :m] = dots
            new_gram[:m, m] = dots
            new_gram[m, m] = float(a_new @ a_new)
            gram = new_gram
            planes_a.append(a_new)
            planes_b.append(b_new)
            inactive.append(0)
            alpha = np.append(alpha, 0.0)

            alpha, dual = self._solve_restricted_dual(gram, np.array(planes_b), alpha)
            weights = (alpha @ np.vstack(planes_a)) / lam

            # Rimozione piani inattivi (mai il piano 0)
            for j in range(1, len(alpha)):
                inactive[j] = inactive[j] + 1 if alpha[j] <= 0.0 else 0
            keep = [j for j in range(len(alpha)) if j == 0 or inactive[j] < INACTIVE_PLANE_LIMIT]
            if len(keep) < len(alpha):
                planes_a = [planes_a[j] for j in keep]
                planes_b = [planes_b[j] for j in keep]
                inactive = [inactive[j] for j in keep]
                gram = gram[np.ix_(keep, keep)]
                alpha = project_to_simplex(alpha[keep])

            if iteration % 10 == 0:
                log.debug(
                    "ssvm_iteration",
                    iteration=iteration,
                    primal=round(best_primal, 6),
                    dual=round(dual, 6),
                    planes=len(planes_a),
                )

        log.warning(
            "ssvm_not_converged",
            iterations=self.max_iterations,
            gap=gap,
            epsilon=self.epsilon,
        )
        raise ConvergenceError(self.max_iterations, gap, self.epsilon)

    def _solve_restricted_dual(
        self,
        gram: np.ndarray,
        b: np.ndarray,
        alpha: np.ndarray,
    ) -> Tuple[np.ndarray, float]:
        """
        Massimizza b.alpha - 1/(2 lambda) alpha' G alpha sul simplesso.

        Gradiente proiettato con passo 1/L, warm start da alpha.
        """
        lam = self.lam
        lipschitz = float(np.linalg.eigvalsh(gram)[-1]) / lam
        step = 1.0 / lipschitz if lipschitz > 0 else 1.0

        def value(a: np.ndarray) -> float:
            return float(b @ a) - float(a @ gram @ a) / (2.0 * lam)

        for _ in range(INNER_MAX_ITERATIONS):
            grad = b - (gram @ alpha) / lam
            # gap di Frank-Wolfe del sottoproblema
            fw_gap = float(grad.max() - grad @ alpha)
            if fw_gap <= 1e-3 * self.epsilon * max(abs(value(alpha)), 1e-12):
                break
            alpha = project_to_simplex(alpha + step * grad)

        return alpha, value(alpha)


def _sum_true_features(problem: StructuralProblem, indices: np.ndarray, dim: int) -> np.ndarray:
    total = np.zeros(dim)
    for i in indices:
        total += problem.true_feature(int(i))
    return total


def _oracle_partition(
    problem: StructuralProblem,
    indices: np.ndarray,
    weights: np.ndarray,
) -> Tuple[np.ndarray, float]:
    phi_sum = np.zeros(problem.dimensionality)
    loss_sum = 0.0
    for i in indices:
        phi, loss = problem.separation_oracle(int(i), weights)
        phi_sum += phi
        loss_sum += loss
    return phi_sum, loss_sum
