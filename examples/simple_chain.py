"""
Example: Simple chain model.

0--1--2 with a unary factor on 0 and pairwise factors on (0, 1), (1, 2).
Each factor carries one feature, the log of a fixed potential table, so a
weight vector of [1.0] reproduces the tables exactly.
"""

import numpy as np
from loglinear import GraphicalModel, compute_marginals


def table_feature(table):
    log_table = np.log(table)
    return lambda a: np.array([log_table[a]])


def main():
    # Unary on 0
    phi_0 = np.array([0.6, 0.4])

    # Pairwise on (0, 1)
    phi_01 = np.array([
        [0.9, 0.1],
        [0.2, 0.8]
    ])

    # Pairwise on (1, 2)
    phi_12 = np.array([
        [0.3, 0.7],
        [0.5, 0.5]
    ])

    model = GraphicalModel()
    model.add_factor([0], [2], table_feature(phi_0))
    model.add_factor([0, 1], [2, 2], table_feature(phi_01))
    pair = model.add_factor([1, 2], [2, 2], table_feature(phi_12))

    print("Running clique tree inference on simple chain 0--1--2...")
    result = compute_marginals(model, np.array([1.0]))

    print(f"\nPartition function Z = {result.partition_function:.6f}")

    print("\nMarginal distributions:")
    for var, marg in enumerate(result.marginals):
        print(f"  P(x{var}) = {marg}")

    print(f"\nP(x1, x2) =\n{result.joint_marginals[pair].values}")

    # Verify by brute force
    print("\n--- Verification by brute force ---")
    Z_brute = 0.0
    for a in range(2):
        for b in range(2):
            for c in range(2):
                w = phi_0[a] * phi_01[a, b] * phi_12[b, c]
                Z_brute += w

    print(f"Z (brute force)  = {Z_brute:.6f}")
    print(f"Z (clique tree)  = {result.partition_function:.6f}")
    print(f"Match: {np.isclose(Z_brute, result.partition_function)}")


if __name__ == "__main__":
    main()
