# program
PROGRAM_ID = 'cwd_backup'
PROGRAM_NAME = 'cwd-backup'

# environment
HOME_ENV_VAR = 'HOME'
SEGMENT_SIZE_ENV_VAR = 'BACKUP_SEGMENT_SIZE'

# segments
SEGMENT_SUFFIX_PREFIX = '.part'
SEGMENT_TEMP_SUFFIX = '.tmp'
