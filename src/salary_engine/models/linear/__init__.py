"""Normal-equation linear regression.

Features are z-normalized, a bias column is prepended and the weights come
from a Gauss-Jordan inverse of the (ridge-stabilized) Gram matrix.
"""
