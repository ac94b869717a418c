from eth_utils import keccak


class MerkleTree:
    """Keccak merkle tree over pre-hashed 32 byte leaves.

    Pairs are sorted before hashing so proofs carry no left/right flags,
    matching OpenZeppelin's MerkleProof. A node without a sibling is
    promoted to the next level unchanged.
    """
    def __init__(self, leaves: list[bytes]):
        if not leaves:
            raise ValueError("Merkle tree requires at least one leaf.")
        self.leaves = list(leaves)
        self.tree = self._build_tree(self.leaves)
        self.root = self.tree[-1][0]

    @staticmethod
    def hash_pair(hash1: bytes, hash2: bytes) -> bytes:
        if hash1 > hash2:
            hash1, hash2 = hash2, hash1
        return keccak(hash1 + hash2)

    def _build_tree(self, leaves: list[bytes]) -> list[list[bytes]]:
        tree = [leaves]
        current_level = leaves
        while len(current_level) > 1:
            next_level = []
            for i in range(0, len(current_level), 2):
                if i + 1 < len(current_level):
                    next_level.append(
                        self.hash_pair(current_level[i], current_level[i + 1])
                    )
                else:
                    next_level.append(current_level[i])
            tree.append(next_level)
            current_level = next_level
        return tree

    def get_root(self) -> bytes:
        return self.root

    def get_proof(self, leaf: bytes) -> list[bytes]:
        if leaf not in self.leaves:
            raise ValueError("Leaf not found in the Merkle tree.")

        proof = []
        leaf_index = self.leaves.index(leaf)
        for level in self.tree[:-1]:
            is_left_node = leaf_index % 2 == 0
            sibling_index = leaf_index + 1 if is_left_node else leaf_index - 1
            if sibling_index < len(level):
                proof.append(level[sibling_index])
            leaf_index //= 2
        return proof

    @staticmethod
    def verify_proof(leaf: bytes, merkle_root: bytes, proof: list[bytes]) -> bool:
        current_hash = leaf
        for sibling_hash in proof:
            current_hash = MerkleTree.hash_pair(current_hash, sibling_hash)
        return current_hash == merkle_root
