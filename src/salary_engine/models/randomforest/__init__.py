"""Random forest regressor built from regularized regression trees.

Trees are grown on stratified bootstrap samples with adaptive feature
subsets; ensemble votes are confidence-weighted after MAD outlier rejection,
and out-of-bag votes provide the generalization estimate.
"""
