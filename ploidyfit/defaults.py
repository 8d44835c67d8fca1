################################################
# Default configuration for ploidyfit
################################################

###
# Execution
###

# Number of worker threads for concurrent ingestion and segmentation
max_threads                                 = 1

# Prefix for output files, defaults to the sample counts filename
output_prefix                               = None

###
# Sample description
###

# Sex of the sample, 'XX', 'XY' or '' if unknown
sex                                         = ''

# Precomputed allele frequency data is available for sample and control,
# enables control segmentation and somatic annotation of CNVs
baf_available                               = False

# Targeted sequencing capture regions (bed), None for whole genome data
capture_regions                             = None

# Window size of the count tables, 0 for whole exome sequencing where each
# capture region is a window, None to infer from the count table
window                                      = None

###
# Normalization
###

# 0: use control when present, 1: GC normalize sample and control then
# take the ratio, 2: control ratio followed by a second GC pass
force_gc_normalization                      = 0

# Polynomial degree of the regression, None for automatic
degree                                      = None

# Include an intercept in the regression, None for automatic
intercept                                   = None

# Regress log sample counts on log control counts
log_log_norm                                = False

# Range of GC content used to fit the GC regression
min_expected_gc                             = 0.35
max_expected_gc                             = 0.55

# Windows with lower mappability are ignored for GC normalization
min_mappability                             = 0.85

# Windows with fewer control reads are ignored
read_count_threshold                        = 10

###
# Segmentation and calling
###

# Breakpoint threshold for segmentation, higher gives fewer breakpoints
breakpoint_threshold                        = 0.8

# Handling of masked regions between segments, see segalg.BREAKPOINT_TYPES
breakpoint_type                             = 2

# Minimal number of windows in a CNA, None for automatic (1, or 3 for
# targeted sequencing)
min_cna_length                              = None

# Merge adjacent segments with equal copy number for noisy coverage
noisy_data                                  = False

# Length of telomeric and centromeric flanks in which short segments are
# absorbed by their interior neighbour
telocentromeric                             = 50000

# Maximum copy number called
max_copy_number                             = 8

###
# Ploidy and contamination
###

# Candidate ploidies, a single value fixes the ploidy
ploidy                                      = [2, 3, 4]

# Estimate and adjust for contamination by normal cells
contamination_adjustment                    = False

# Known contamination by normal cells as a fraction or percentage,
# requires contamination_adjustment
contamination                               = 0.

# Minimal presence of a subclone to report, 1 disables subclone detection
min_subclone_presence                       = 1.

###
# Output
###

# Write -1 for unavailable values in the ratio file, otherwise drop them
print_na                                    = True

# Additionally write the ratio as a BedGraph track
bedgraph_output                             = False
