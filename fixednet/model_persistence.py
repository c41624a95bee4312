"""
model_persistence.py
~~~~~~~~~~~~~~~~~~~~

SQLite storage for trained networks.

Each row holds the pickled ``Network`` together with the hyperparameters it
was trained with and its test accuracy, so runs can be listed and compared
without unpickling them.
"""

import json
import logging
import os
import pickle
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional

from fixednet.network import Network

# Configure module logger
logger = logging.getLogger(__name__)

DB_FILENAME = 'networks.db'

_METADATA_COLUMNS = '''
    network_id,
    layer_sizes,
    epochs,
    learning_rate,
    accuracy,
    created_at,
    updated_at
'''


class ModelDatabase:
    """
    SQLite database of trained networks.

    The ``networks`` table stores:
    - the layer sizes as JSON, for listing without unpickling
    - training hyperparameters and accuracy
    - the pickled Network as a binary blob
    """

    def __init__(self, db_path: str = os.path.join('models', DB_FILENAME)):
        """
        Open (and create if needed) the database.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        self._initialize_schema()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Yield a connection that commits on success and rolls back on error."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_schema(self) -> None:
        with self._get_connection() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS networks (
                    network_id TEXT PRIMARY KEY,
                    layer_sizes TEXT NOT NULL,
                    network_data BLOB NOT NULL,
                    epochs INTEGER,
                    learning_rate REAL,
                    accuracy REAL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            conn.execute('''
                CREATE INDEX IF NOT EXISTS idx_created_at
                ON networks(created_at DESC)
            ''')

    @staticmethod
    def _row_to_metadata(row: sqlite3.Row) -> Dict[str, Any]:
        layer_sizes = json.loads(row['layer_sizes'])
        return {
            'network_id': row['network_id'],
            'layer_sizes': layer_sizes,
            'weights_shape': [
                [layer_sizes[i + 1], layer_sizes[i]]
                for i in range(len(layer_sizes) - 1)
            ],
            'biases_shape': [
                [layer_sizes[i + 1], 1]
                for i in range(len(layer_sizes) - 1)
            ],
            'epochs': row['epochs'],
            'learning_rate': row['learning_rate'],
            'accuracy': row['accuracy'],
            'created_at': row['created_at'],
            'updated_at': row['updated_at']
        }

    def save_network_to_db(
        self,
        network: Network,
        network_id: str,
        epochs: Optional[int] = None,
        learning_rate: Optional[float] = None,
        accuracy: Optional[float] = None
    ) -> bool:
        """
        Insert or replace a network.

        Args:
            network: Network to store
            network_id: Unique identifier
            epochs: Number of epochs it was trained for
            learning_rate: Learning rate it was trained with
            accuracy: Test accuracy as a fraction (0.0 to 1.0)

        Returns:
            bool: True once the row is written

        Raises:
            ValueError: If accuracy is outside [0, 1]
        """
        if accuracy is not None and not 0.0 <= accuracy <= 1.0:
            raise ValueError(
                f"Accuracy must be between 0.0 and 1.0, got {accuracy}"
            )

        network_data = pickle.dumps(network)

        with self._get_connection() as conn:
            conn.execute('''
                INSERT INTO networks
                (network_id, layer_sizes, network_data, epochs,
                 learning_rate, accuracy)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(network_id) DO UPDATE SET
                    layer_sizes = excluded.layer_sizes,
                    network_data = excluded.network_data,
                    epochs = excluded.epochs,
                    learning_rate = excluded.learning_rate,
                    accuracy = excluded.accuracy,
                    updated_at = CURRENT_TIMESTAMP
            ''', (
                network_id,
                json.dumps(network.sizes),
                network_data,
                epochs,
                learning_rate,
                accuracy
            ))

        logger.info(
            f"Saved network '{network_id}' with layers {network.sizes}, "
            f"epochs={epochs}, learning_rate={learning_rate}, accuracy={accuracy}"
        )
        return True

    def load_network_from_db(self, network_id: str) -> Optional[Network]:
        """Return the stored network, or None if the id is unknown."""
        with self._get_connection() as conn:
            row = conn.execute(
                'SELECT network_data FROM networks WHERE network_id = ?',
                (network_id,)
            ).fetchone()

        if row is None:
            logger.warning(f"Network '{network_id}' not found")
            return None

        network = pickle.loads(row['network_data'])
        logger.info(f"Loaded network '{network_id}'")
        return network

    def list_networks_from_db(self) -> List[Dict[str, Any]]:
        """Return metadata for every stored network, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                f'SELECT {_METADATA_COLUMNS} FROM networks '
                f'ORDER BY created_at DESC, network_id'
            ).fetchall()

        networks = [self._row_to_metadata(row) for row in rows]
        logger.debug(f"Listed {len(networks)} networks")
        return networks

    def delete_network_from_db(self, network_id: str) -> bool:
        """
        Delete a network.

        Returns:
            bool: True if a row was deleted, False if the id is unknown
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                'DELETE FROM networks WHERE network_id = ?',
                (network_id,)
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted network '{network_id}'")
        else:
            logger.warning(f"Could not delete network '{network_id}': not found")
        return deleted

    def get_network_metadata_from_db(self, network_id: str) -> Optional[Dict[str, Any]]:
        """Return metadata for one network without unpickling it."""
        with self._get_connection() as conn:
            row = conn.execute(
                f'SELECT {_METADATA_COLUMNS} FROM networks WHERE network_id = ?',
                (network_id,)
            ).fetchone()

        if row is None:
            logger.warning(f"Metadata for network '{network_id}' not found")
            return None
        return self._row_to_metadata(row)


def _open_db(model_dir: str) -> ModelDatabase:
    return ModelDatabase(db_path=os.path.join(model_dir, DB_FILENAME))


def _valid_id(network_id: Any) -> bool:
    if not network_id or not isinstance(network_id, str):
        logger.error("Invalid network_id: must be a non-empty string")
        return False
    return True


def save_network(
    network: Network,
    network_id: str,
    model_dir: str = 'models',
    epochs: Optional[int] = None,
    learning_rate: Optional[float] = None,
    accuracy: Optional[float] = None
) -> bool:
    """
    Save a trained network.

    Args:
        network: The network to save
        network_id: A unique identifier for the network
        model_dir: Directory holding the database file
        epochs: Number of training epochs
        learning_rate: Training learning rate
        accuracy: Test accuracy as a fraction (0.0 to 1.0)

    Returns:
        bool: True if the save was successful, False otherwise

    Example:
        >>> net = Network([784, 128, 64, 10])
        >>> save_network(net, "baseline", epochs=20, learning_rate=0.001)
        True
    """
    if not _valid_id(network_id):
        return False

    try:
        return _open_db(model_dir).save_network_to_db(
            network, network_id, epochs, learning_rate, accuracy
        )
    except ValueError as e:
        logger.error(f"Validation error saving network '{network_id}': {e}")
        return False
    except (AttributeError, pickle.PicklingError) as e:
        logger.error(f"Serialization error saving network '{network_id}': {e}")
        return False
    except sqlite3.Error as e:
        logger.error(f"Database error saving network '{network_id}': {e}")
        return False


def load_network(network_id: str, model_dir: str = 'models') -> Optional[Network]:
    """
    Load a saved network.

    Returns:
        The network, or None if it is missing or cannot be read
    """
    if not _valid_id(network_id):
        return None

    try:
        return _open_db(model_dir).load_network_from_db(network_id)
    except pickle.UnpicklingError as e:
        logger.error(f"Deserialization error loading network '{network_id}': {e}")
        return None
    except sqlite3.Error as e:
        logger.error(f"Database error loading network '{network_id}': {e}")
        return None


def list_saved_networks(model_dir: str = 'models') -> List[Dict[str, Any]]:
    """
    List metadata of all saved networks.

    Example:
        >>> for net in list_saved_networks():
        ...     print(f"{net['network_id']}: {net['layer_sizes']}")
    """
    try:
        return _open_db(model_dir).list_networks_from_db()
    except sqlite3.Error as e:
        logger.error(f"Database error listing networks: {e}")
        return []
    except json.JSONDecodeError as e:
        logger.error(f"JSON decode error listing networks: {e}")
        return []


def delete_network(network_id: str, model_dir: str = 'models') -> bool:
    """Delete a saved network; returns False if it did not exist."""
    if not _valid_id(network_id):
        return False

    try:
        return _open_db(model_dir).delete_network_from_db(network_id)
    except sqlite3.Error as e:
        logger.error(f"Database error deleting network '{network_id}': {e}")
        return False


def get_network_metadata(
    network_id: str,
    model_dir: str = 'models'
) -> Optional[Dict[str, Any]]:
    """Return metadata of one saved network, or None if not found."""
    if not _valid_id(network_id):
        return None

    try:
        return _open_db(model_dir).get_network_metadata_from_db(network_id)
    except sqlite3.Error as e:
        logger.error(f"Database error getting metadata for '{network_id}': {e}")
        return None
    except json.JSONDecodeError as e:
        logger.error(f"JSON decode error getting metadata for '{network_id}': {e}")
        return None
