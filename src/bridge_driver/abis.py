"""Minimal ABIs of the EVM contracts the driver talks to."""


def _fn(name, inputs, outputs=(), mutability="nonpayable"):
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
        "stateMutability": mutability,
    }


ETH_CUSTODIAN_ABI = [
    _fn("depositToNear", [("nearRecipientAccountId", "string"), ("fee", "uint256")], mutability="payable"),
    _fn("depositToEVM", [("ethRecipientOnNear", "string"), ("fee", "uint256")], mutability="payable"),
    _fn("withdraw", [("proofData", "bytes"), ("proofBlockHeight", "uint64")]),
]

BRIDGE_TOKEN_FACTORY_ABI = [
    _fn("newBridgeToken", [("proofData", "bytes"), ("proofBlockHeight", "uint64")]),
    _fn("deposit", [("proofData", "bytes"), ("proofBlockHeight", "uint64")]),
    _fn("withdraw", [("token", "string"), ("amount", "uint128"), ("recipient", "string")]),
    _fn("nearToEthToken", [("nearTokenId", "string")], [("", "address")], mutability="view"),
    {
        "type": "function",
        "name": "deposit_omni",
        "inputs": [
            {"name": "signatureData", "type": "bytes"},
            {
                "name": "bridgeDeposit",
                "type": "tuple",
                "components": [
                    {"name": "nonce", "type": "uint128"},
                    {"name": "token", "type": "string"},
                    {"name": "amount", "type": "uint128"},
                    {"name": "recipient", "type": "address"},
                    {"name": "feeRecipient", "type": "string"},
                ],
            },
        ],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
]

ERC20_ABI = [
    _fn("allowance", [("owner", "address"), ("spender", "address")], [("", "uint256")], mutability="view"),
    _fn("approve", [("spender", "address"), ("amount", "uint256")], [("", "bool")]),
]

FAST_BRIDGE_ABI = [
    _fn(
        "transferTokens",
        [
            ("_token", "address"),
            ("_recipient", "address"),
            ("_nonce", "uint256"),
            ("_amount", "uint256"),
            ("_unlock_recipient", "string"),
            ("_valid_till_block_height", "uint256"),
        ],
        mutability="payable",
    ),
]

NEAR_LIGHT_CLIENT_ABI = [
    _fn(
        "bridgeState",
        [],
        [
            ("currentHeight", "uint256"),
            ("nextTimestamp", "uint256"),
            ("nextValidAt", "uint256"),
            ("numBlockProducers", "uint256"),
        ],
        mutability="view",
    ),
    _fn("blockHashes", [("height", "uint64")], [("", "bytes32")], mutability="view"),
]

ABIS = {
    "EthCustodian": ETH_CUSTODIAN_ABI,
    "BridgeTokenFactory": BRIDGE_TOKEN_FACTORY_ABI,
    "ERC20": ERC20_ABI,
    "FastBridge": FAST_BRIDGE_ABI,
    "NearLightClient": NEAR_LIGHT_CLIENT_ABI,
}
