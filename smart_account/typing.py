from typing import NewType

UserOperationHash = NewType('UserOperationHash', str)
Address = NewType('Address', str)
HexStr = NewType('HexStr', str)
