from fastapi import status

from skill_matrix.domain.shared.exceptions import ErrorType

ERROR_STATUS = {
    ErrorType.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorType.PERMISSION: status.HTTP_403_FORBIDDEN,
    ErrorType.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorType.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorType.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorType.REPOSITORY: status.HTTP_500_INTERNAL_SERVER_ERROR,
}
