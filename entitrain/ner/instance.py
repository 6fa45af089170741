"""
NER Training Instance
=====================

Una sequenza di token annotata con le entita' presenti nel testo.

Le annotazioni sono range semiaperti [start, end) sui token, mai
sovrapposti tra loro. I token sono immutabili dopo la costruzione.

Esempio:
    >>> instance = NERTrainingInstance(["John", "lives", "in", "Boston"])
    >>> instance.add_entity((0, 1), "PERSON")
    >>> instance.add_entity(3, 1, "LOCATION")
    >>> instance.num_entities()
    2
"""

import numbers
from typing import List, Optional, Sequence, Tuple, Union

from entitrain.exceptions import InvalidSpanError

Span = Tuple[int, int]


class NERTrainingInstance:
    """
    Sequenza di token con annotazioni di entita'.

    Il trainer consuma l'istanza solo tramite ``tokens`` e ``entities()``,
    copiandone il contenuto: modifiche successive all'istanza non hanno
    effetto su un trainer a cui e' gia' stata aggiunta.
    """

    def __init__(self, tokens: Sequence[str]):
        if isinstance(tokens, str):
            raise TypeError("tokens deve essere una sequenza di stringhe, non una stringa")
        self._tokens: Tuple[str, ...] = tuple(str(token) for token in tokens)
        self._chunks: List[Span] = []
        self._chunk_labels: List[str] = []

    @property
    def tokens(self) -> Tuple[str, ...]:
        return self._tokens

    def num_tokens(self) -> int:
        return len(self._tokens)

    def num_entities(self) -> int:
        return len(self._chunks)

    def entities(self) -> List[Tuple[Span, str]]:
        """Restituisce le coppie (range, label) in ordine di inserimento."""
        return list(zip(self._chunks, self._chunk_labels))

    def overlaps_any_entity(self, start: int, length: int) -> bool:
        """
        Verifica se [start, start+length) interseca un'entita' esistente.

        Args:
            start: Indice del primo token
            length: Numero di token (> 0)

        Raises:
            InvalidSpanError: se length <= 0 o il range esce dai token
        """
        if not _is_index(start) or not _is_index(length):
            raise InvalidSpanError(f"indici non interi: start={start!r}, length={length!r}")
        end = start + length
        self._check_bounds(start, end)
        return any(start < c_end and c_start < end for c_start, c_end in self._chunks)

    def add_entity(
        self,
        span_or_start: Union[Span, int],
        length_or_label: Union[int, str],
        label: Optional[str] = None,
    ) -> None:
        """
        Aggiunge un'entita'.

        Due forme:
            add_entity((start, end), label)       range semiaperto
            add_entity(start, length, label)      inizio + lunghezza

        Raises:
            InvalidSpanError: range vuoto, fuori dai limiti o sovrapposto
        """
        if label is None:
            if not isinstance(span_or_start, (tuple, list)) or len(span_or_start) != 2:
                raise InvalidSpanError(f"range atteso come (start, end), ricevuto {span_or_start!r}")
            start, end = span_or_start
            entity_label = length_or_label
        else:
            start = span_or_start
            length = length_or_label
            if not _is_index(start) or not _is_index(length):
                raise InvalidSpanError(f"indici non interi: start={start!r}, length={length!r}")
            end = start + length
            entity_label = label

        if not isinstance(entity_label, str) or not entity_label:
            raise InvalidSpanError(f"label non valida: {entity_label!r}", start, end)

        self._check_bounds(start, end)
        if self.overlaps_any_entity(start, end - start):
            raise InvalidSpanError("l'entita' si sovrappone a un'entita' esistente", start, end)

        self._chunks.append((int(start), int(end)))
        self._chunk_labels.append(entity_label)

    def _check_bounds(self, start: int, end: int) -> None:
        if not _is_index(start) or not _is_index(end):
            raise InvalidSpanError(f"indici non interi: start={start!r}, end={end!r}")
        if start < 0 or start >= end or end > len(self._tokens):
            raise InvalidSpanError(
                f"range non valido per {len(self._tokens)} token", start, end
            )

    def __repr__(self) -> str:
        return (
            f"NERTrainingInstance(tokens={len(self._tokens)}, "
            f"entities={len(self._chunks)})"
        )


def _is_index(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)
